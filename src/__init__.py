"""
OneShopCentrale Quote Intake — service catalog, quote requests, notifications

Packages:
    api/        Intake form + JSON routes and templates
    forms/      Quote request PDF generation
    agents/     Submission pipeline and email notifications
    core/       Catalog, cart state, storage, configuration, security
"""
