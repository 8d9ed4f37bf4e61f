"""Access to the Supabase content store."""
