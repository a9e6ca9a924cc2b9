"""Service checkout marketplace multi-vendeurs (FastAPI + Supabase + Stripe)."""
