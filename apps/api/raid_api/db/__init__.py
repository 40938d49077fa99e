"""Database layer: ORM models, engine/session, repositories, keyed locks."""
