"""
Service Catalog — the fixed bouquet of OneShopCentrale services.

Categories and services are immutable and ordered the way the intake form
lists them. SERVICE_INDEX is built once at import for O(1) title lookup.
init_catalog() mirrors the catalog into the service_categories / services
tables so stored quote rows can reference a service id.
"""
import logging
from datetime import datetime
from typing import NamedTuple, Optional

log = logging.getLogger("intake.catalog")


class Service(NamedTuple):
    id: str
    title: str


class ServiceCategory(NamedTuple):
    id: str
    title: str
    description: str
    services: tuple


def _category(cid, title, description, services):
    return ServiceCategory(cid, title, description,
                           tuple(Service(sid, stitle) for sid, stitle in services))


SERVICE_CATEGORIES = (
    _category("ideation", "Product Ideation & Research",
              "Market research, feasibility, validation and product concepting.", [
                  ("market-research", "Market Research & Consumer Insights"),
                  ("competitive-benchmark", "Competitive Benchmarking"),
                  ("feasibility", "Feasibility Studies"),
                  ("concept-dev", "Product Concept Development"),
                  ("validation", "Validation & Pilot Testing"),
              ]),
    _category("design", "Design & Creative Services",
              "Product design, visuals, photography, prototypes.", [
                  ("industrial-design", "Industrial / Product Design"),
                  ("graphic-design", "Graphic & Logo Design"),
                  ("ux-ui", "UX / UI Design"),
                  ("photo-video", "Product Photography & Videography"),
                  ("prototyping", "Prototyping & 3D Rendering"),
              ]),
    _category("branding", "Branding & Identity",
              "Strategy, messaging, brand guides and localization.", [
                  ("brand-strategy", "Brand Strategy & Positioning"),
                  ("logo-identity", "Logo & Identity"),
                  ("messaging", "Messaging & Copywriting"),
                  ("guidelines", "Brand Guidelines"),
                  ("localization", "Multilingual Branding"),
              ]),
    _category("packaging", "Packaging & Labeling",
              "Design, sourcing and compliance-ready labels.", [
                  ("pack-design", "Packaging Design (structural + aesthetic)"),
                  ("eco-pack", "Sustainable / Eco Packaging"),
                  ("labeling", "Compliance Labeling"),
                  ("smart-pack", "QR / Smart Packaging"),
                  ("print-prod", "Print & Production Management"),
              ]),
    _category("digital", "Digital Presence & Web",
              "Websites, ecommerce, SEO and catalogs.", [
                  ("website", "Corporate Website Development"),
                  ("ecommerce", "E-commerce Store Setup"),
                  ("seo", "SEO & Listing Optimization"),
                  ("landing", "Product Landing Pages"),
                  ("catalog", "Digital Catalogs & Brochures"),
              ]),
    _category("marketing", "Marketing & Go-to-Market",
              "Social, PR, ads, trade shows and partnerships.", [
                  ("social", "Social Media Strategy & Content"),
                  ("influencer", "Influencer & Affiliate Partnerships"),
                  ("pr", "PR & Media Outreach"),
                  ("ads", "Paid Advertising Campaigns"),
                  ("tradeshows", "Trade Show Representation"),
              ]),
    _category("compliance", "Compliance & Certification",
              "Certifications, IP and export doc support.", [
                  ("certs", "Product Certification Support"),
                  ("ip", "Intellectual Property Assistance"),
                  ("export-docs", "Export Documentation Support"),
                  ("safety", "Safety & Regulatory Compliance"),
              ]),
    _category("manufacturing", "Manufacturing & Supply Chain",
              "Suppliers, contract manufacturing and QA.", [
                  ("sourcing", "Supplier & Vendor Sourcing"),
                  ("small-batch", "Small-Batch Production Setup"),
                  ("contract-man", "Contract Manufacturing"),
                  ("qa", "Quality Assurance & Testing"),
                  ("inventory", "Inventory & Warehouse Consulting"),
              ]),
    _category("finance", "Financing & Insurance",
              "Trade finance, grants and insurance advisory.", [
                  ("trade-finance", "Trade Finance Access"),
                  ("grants", "Grants & Funding Advisory"),
                  ("insurance", "Export & Product Insurance"),
                  ("liability", "Product Liability Insurance"),
              ]),
    _category("growth", "Post-Launch Growth",
              "Distribution, iteration, scaling and licensing.", [
                  ("distributor", "Distributor & Retailer Matchmaking"),
                  ("feedback", "Customer Feedback Loops"),
                  ("scaling", "Iteration & SKU Scaling"),
                  ("licensing", "Licensing & Franchising"),
              ]),
)

# service id -> (category, service)
SERVICE_INDEX = {
    svc.id: (cat, svc)
    for cat in SERVICE_CATEGORIES
    for svc in cat.services
}

BUDGET_OPTIONS = (
    ("<5k", "Under $5k"),
    ("5k-20k", "$5k – $20k"),
    (">20k", "Over $20k"),
)

TIMELINE_OPTIONS = (
    ("1-3", "1–3 months"),
    ("3-6", "3–6 months"),
    ("flexible", "Flexible"),
)


def get_service(service_id: str) -> Optional[Service]:
    entry = SERVICE_INDEX.get(service_id)
    return entry[1] if entry else None


def category_of(service_id: str) -> Optional[ServiceCategory]:
    entry = SERVICE_INDEX.get(service_id)
    return entry[0] if entry else None


def service_title(service_id: str) -> str:
    """Catalog title for a service id; unknown ids come back unchanged."""
    svc = get_service(service_id)
    return svc.title if svc else service_id


def option_label(options: tuple, value: str) -> str:
    """Display label for a budget/timeline value; unknown values pass through."""
    return dict(options).get(value, value)


def catalog_as_dict() -> list:
    """JSON-friendly view used by /api/catalog and the form template."""
    return [
        {
            "id": cat.id,
            "title": cat.title,
            "description": cat.description,
            "services": [{"id": s.id, "title": s.title} for s in cat.services],
        }
        for cat in SERVICE_CATEGORIES
    ]


# ═══════════════════════════════════════════════════════════════════════════════
# DB mirror
# ═══════════════════════════════════════════════════════════════════════════════

def init_catalog() -> int:
    """Upsert every category and service into SQLite. Returns the service count."""
    from src.core.db import get_db

    now = datetime.now().isoformat()
    loaded = 0
    with get_db() as conn:
        for cat_order, cat in enumerate(SERVICE_CATEGORIES):
            conn.execute("""
                INSERT INTO service_categories
                  (id, name, description, display_order, is_active, created_at, updated_at)
                VALUES (?,?,?,?,1,?,?)
                ON CONFLICT(id) DO UPDATE SET
                  name=excluded.name, description=excluded.description,
                  display_order=excluded.display_order, updated_at=excluded.updated_at
            """, (cat.id, cat.title, cat.description, cat_order, now, now))
            for svc_order, svc in enumerate(cat.services):
                conn.execute("""
                    INSERT INTO services
                      (id, category_id, name, display_order, is_active, created_at, updated_at)
                    VALUES (?,?,?,?,1,?,?)
                    ON CONFLICT(id) DO UPDATE SET
                      category_id=excluded.category_id, name=excluded.name,
                      display_order=excluded.display_order, updated_at=excluded.updated_at
                """, (svc.id, cat.id, svc.title, svc_order, now, now))
                loaded += 1
    log.info("Catalog initialized: %d categories, %d services",
             len(SERVICE_CATEGORIES), loaded)
    return loaded
