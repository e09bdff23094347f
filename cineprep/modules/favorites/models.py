# Supabase tables: user_favorites, user_taste_profile, movie_recommendations, user_notification_tokens

"""
Expected Supabase table structure:

user_favorites:
- id: uuid (primary key)
- user_id: uuid (references users.id)
- user_analysis_id: uuid (references user_analyses.id)
- tmdb_movie_id: int
- movie_title: text
- movie_poster_path: text (nullable)
- genres: jsonb
- vote_average: numeric (nullable)
- release_year: int (nullable)
- created_at: timestamptz (default: now())
- unique (user_id, user_analysis_id)

user_taste_profile:
- user_id: uuid (primary key)
- genre_preferences: jsonb - {genre: 0-100}
- decade_preferences: jsonb - {"1990s": 0-100}
- franchise_preferences: jsonb - [{collection_id, name, score}]
- tone_preferences: jsonb - {tone: 0-100}
- emotional_keywords: jsonb - [keyword]
- avg_movie_rating: numeric
- total_movies_analyzed: int
- notification_enabled: bool (default true)
- notification_frequency: text - daily | weekly | monthly | never
- updated_at: timestamptz

movie_recommendations:
- id: uuid (primary key)
- user_id: uuid
- tmdb_movie_id: int
- movie_title, movie_poster_path, movie_backdrop_path, overview: text
- release_date: date, vote_average: numeric, genres: jsonb
- recommendation_score: int
- recommendation_reason: text
- matching_factors: jsonb - {genre_match, franchise_match, decade_match}
- status: text (default 'pending') - pending | sent | viewed | dismissed | converted
- notification_sent_at, viewed_at: timestamptz (nullable)
- created_at: timestamptz
- unique (user_id, tmdb_movie_id)

user_notification_tokens:
- id: uuid (primary key)
- user_id: uuid
- token: text
- platform: text - web | ios | android
- device_name: text (nullable)
- is_active: bool
- last_used_at, updated_at: timestamptz
- unique (user_id, token)
"""
