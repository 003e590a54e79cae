# portalbot/ai/__init__.py
from .ai_utils import chat_reply, load_model, predict_intent, train
