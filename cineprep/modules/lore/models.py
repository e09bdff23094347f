# Supabase tables: lore_cache, user_analyses

"""
Expected Supabase table structure:

lore_cache:
- id: uuid (primary key)
- tmdb_movie_id: int (unique) - the movie the lore prepares the viewer for
- movie_title: text
- tmdb_collection_id: int (nullable)
- collection_name: text (nullable)
- analysis_data: jsonb - the generated analysis (required_movies[], spoiler_free_guarantee, ...)
- hit_count: int
- created_at / updated_at: timestamptz

user_analyses:
- id: uuid (primary key)
- user_id: uuid (references users.id)
- lore_cache_id: uuid (references lore_cache.id, nullable)
- tmdb_movie_id: int
- movie_title: text
- movie_poster_path: text (nullable)
- genres: jsonb - [{id, name}]
- vote_average: numeric (nullable)
- release_year: int (nullable)
- analysis_data: jsonb
- is_favorite: bool
- user_rating: numeric (nullable)
- created_at: timestamptz (default: now())

Every generation request inserts a user_analyses row, whether the lore was
served from lore_cache or freshly generated.
"""
