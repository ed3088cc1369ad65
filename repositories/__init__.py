"""Persistence adapters (Supabase)."""
