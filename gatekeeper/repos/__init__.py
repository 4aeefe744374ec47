from .user import InMemoryUserRepo, UserRepo

__all__ = ["InMemoryUserRepo", "UserRepo"]
