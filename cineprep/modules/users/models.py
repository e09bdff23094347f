# Supabase table: users (public mirror of auth.users)
# Schema documented in cineprep/modules/auth/models.py; this module only reads
# and updates the profile columns (full_name, avatar_url).
