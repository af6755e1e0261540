from familytree.routers import auth, families, health, persons, posts, relationships, users

__all__ = [
    "health",
    "auth",
    "users",
    "families",
    "persons",
    "relationships",
    "posts",
]
