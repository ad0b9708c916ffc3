"""PDF generation.

Key exports:
    generate_quote_request_pdf() — Render the quote request summary attached to admin alerts
"""
