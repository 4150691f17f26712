from bot.handlers.federation.federation_commands import federation_router

__all__ = ["federation_router"]
