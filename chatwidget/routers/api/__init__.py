from fastapi import APIRouter

from . import auth, chat, chatbots, contact, embeds, public, subscription, surveys, websites

api_router = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(chatbots.router, prefix="/chatbots", tags=["chatbots"])
api_router.include_router(embeds.router, prefix="/chatbots", tags=["embeds"])
api_router.include_router(websites.router, prefix="/chatbots", tags=["website-sources"])
api_router.include_router(surveys.router, tags=["surveys"])
api_router.include_router(surveys.sessions_router, prefix="/survey-sessions", tags=["survey-sessions"])
api_router.include_router(chat.router, prefix="/chat", tags=["chat"])
api_router.include_router(contact.router, prefix="/contact", tags=["contact"])
api_router.include_router(public.router, prefix="/public", tags=["public"])
api_router.include_router(subscription.router, prefix="/subscription", tags=["subscription"])
