"""Submission pipeline and outbound notifications.

Modules:
    orchestrator  — LangGraph pipeline: validate → save request → save services → notify
    notify_agent  — admin alert (HTML + PDF) and client confirmation via Resend
"""
