"""
Schémas pydantic aux frontières HTTP:
- CheckoutPayload / Address: body JSON de POST /checkout/session (champs camelCase, nettoyés à la validation)
- StripeEvent / CheckoutSessionObject: événement Stripe vérifié (webhook)
"""
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .sanitize import sanitize_address, sanitize_note, sanitize_phone


class Address(BaseModel):
    """Adresse acheteur; les clés camelCase sont conservées telles quelles en base."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    full_name: Optional[str] = Field(default=None, alias="fullName")
    company: Optional[str] = None
    line1: Optional[str] = None
    line2: Optional[str] = None
    postal_code: Optional[str] = Field(default=None, alias="postalCode")
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    tax_id: Optional[str] = Field(default=None, alias="taxId")

    def as_row(self) -> Dict[str, str]:
        return self.model_dump(by_alias=True, exclude_none=True)


class CheckoutPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    locale: Optional[str] = None
    shipping_address: Address = Field(default_factory=Address, alias="shippingAddress")
    billing_address: Address = Field(default_factory=Address, alias="billingAddress")
    contact_phone: Optional[str] = Field(default=None, alias="contactPhone")
    buyer_note: Optional[str] = Field(default=None, alias="buyerNote")

    @field_validator("locale", mode="before")
    @classmethod
    def _locale_is_text(cls, v: Any) -> Optional[str]:
        return v if isinstance(v, str) else None

    @field_validator("shipping_address", "billing_address", mode="before")
    @classmethod
    def _clean_address(cls, v: Any) -> Dict[str, str]:
        if isinstance(v, Address):
            v = v.as_row()
        return sanitize_address(v)

    @field_validator("contact_phone", mode="before")
    @classmethod
    def _clean_phone(cls, v: Any) -> Optional[str]:
        return sanitize_phone(v)

    @field_validator("buyer_note", mode="before")
    @classmethod
    def _clean_note(cls, v: Any) -> Optional[str]:
        return sanitize_note(v)

    @classmethod
    def from_body(cls, body: Any) -> "CheckoutPayload":
        """Body absent ou non-objet => payload vide (tous les champs sont optionnels)."""
        return cls.model_validate(body if isinstance(body, dict) else {})


class CheckoutSessionObject(BaseModel):
    """Sous-ensemble de stripe.checkout.Session utilisé par la réconciliation."""
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    client_reference_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    payment_intent: Union[str, Dict[str, Any], None] = None
    amount_total: Optional[int] = None
    currency: Optional[str] = None
    mode: Optional[str] = None
    payment_status: Optional[str] = None
    locale: Optional[str] = None
    customer_email: Optional[str] = None
    customer_details: Optional[Dict[str, Any]] = None

    @property
    def payment_intent_id(self) -> Optional[str]:
        if isinstance(self.payment_intent, str):
            return self.payment_intent
        if isinstance(self.payment_intent, dict):
            return self.payment_intent.get("id")
        return None

    @property
    def buyer_email(self) -> Optional[str]:
        return (self.customer_details or {}).get("email") or self.customer_email


class EventData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    object: Dict[str, Any] = Field(default_factory=dict)


class StripeEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    type: str
    created: Optional[int] = None
    data: EventData = Field(default_factory=EventData)

    def checkout_session(self) -> CheckoutSessionObject:
        return CheckoutSessionObject.model_validate(self.data.object)
