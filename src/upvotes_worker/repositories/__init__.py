"""Order storage backends."""

from upvotes_worker.repositories.base import OrderRepository
from upvotes_worker.repositories.postgres_repository import PostgresOrderRepository
from upvotes_worker.repositories.supabase_repository import SupabaseOrderRepository

__all__ = ["OrderRepository", "PostgresOrderRepository", "SupabaseOrderRepository"]
