"""
medquery: drug identification and symptom triage on top of a
chat-completions LLM.

The entry point for callers is `medquery.engine.QueryEngine`.
"""
