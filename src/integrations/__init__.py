"""
External system integrations (Supabase data store).
"""
