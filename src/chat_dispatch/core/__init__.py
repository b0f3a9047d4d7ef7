"""Core building blocks shared by chat-dispatch surfaces."""
