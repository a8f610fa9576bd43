"""
catalog-sync: reconcile the Arternal catalog into Supabase.
"""

__version__ = "1.0.0"
