# marketplace.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

"""
Configuration centrale du service checkout.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Stripe)
- Paramètres métier du checkout: devise de règlement, locales, origine du site
- Sécurité HTTP: CORS/hosts, cookies
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _csv_env(name: str, default: str) -> list:
    return [p.strip() for p in os.getenv(name, default).split(",") if p.strip()]

# Supabase: URLs et clés (anon/service)
# - SUPABASE_URL peut parfois être sans schéma: on préfixe en https:// si nécessaire
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or os.getenv("NEXT_PUBLIC_SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or os.getenv("NEXT_PUBLIC_SUPABASE_ANON_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Stripe: clé secrète, secret webhook et moyens de paiement proposés
STRIPE_SECRET_KEY = _clean_env(os.getenv("STRIPE_SECRET_KEY") or "")
STRIPE_WEBHOOK_SECRET = _clean_env(os.getenv("STRIPE_WEBHOOK_SECRET") or "")
STRIPE_PAYMENT_METHOD_TYPES = _csv_env("STRIPE_PAYMENT_METHOD_TYPES", "card,blik,p24")

# Origine publique du site (URLs de retour du checkout); vide => origine de la requête
SITE_URL = _clean_env(os.getenv("SITE_URL") or os.getenv("NEXT_PUBLIC_SITE_URL") or "").rstrip("/")

# Checkout: une seule devise de règlement sur la plateforme
DEFAULT_CURRENCY = _clean_env(os.getenv("DEFAULT_CURRENCY") or "PLN").upper()
SUPPORTED_LOCALES = [l.lower() for l in _csv_env("SUPPORTED_LOCALES", "pl,en")]
DEFAULT_LOCALE = _clean_env(os.getenv("DEFAULT_LOCALE") or "pl").lower()

# Cookies / CORS / hosts
COOKIE_SECURE = (os.getenv("COOKIE_SECURE", "false").lower() == "true")
CORS_ORIGINS = _csv_env("CORS_ORIGINS", "*")
ALLOWED_HOSTS = _csv_env("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver")
# Proxies dont les en-têtes X-Forwarded-* sont crus (IPs, "*" pour tous)
FORWARDED_ALLOW_IPS = _csv_env("FORWARDED_ALLOW_IPS", "127.0.0.1")

LOG_LEVEL = (os.getenv("LOG_LEVEL") or "info").upper()
