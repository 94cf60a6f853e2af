from .account_repository import AccountRepository, SqlAlchemyAccountRepository

__all__ = ["AccountRepository", "SqlAlchemyAccountRepository"]
