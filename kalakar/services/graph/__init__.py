"""LangGraph onboarding workflow."""
