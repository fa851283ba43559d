"""
Built-in mission templates offered when creating a mission
"""
from typing import Any, Dict, List


def _item(text: str, photo=False, video=False, comment=False, timer=False) -> Dict[str, Any]:
    return {
        "text": text,
        "requires": {"photo": photo, "video": video, "comment": comment, "timer": timer},
    }


def _cairo(address: str, line1: str, lat: float, lng: float) -> Dict[str, Any]:
    return {
        "address": address,
        "lat": lat,
        "lng": lng,
        "addressParts": {"line1": line1, "city": "Cairo", "region": "Cairo", "country": "EG"},
    }


MISSION_TEMPLATES: List[Dict[str, Any]] = [
    {
        "id": "tpl-fastfood",
        "name": "Fast Food Mystery Visit",
        "notes": "Order, cleanliness, staff courtesy, speed.",
        "defaultStore": "Demo Store",
        "defaultLocation": _cairo("Tahrir, Cairo", "Tahrir", 30.0444, 31.2357),
        "defaultChecklist": [
            _item("Was the greeting friendly?", comment=True),
            _item("Order accuracy verified", photo=True),
        ],
        "defaultBudget": 120,
        "defaultFee": 30,
        "requiresVideo": False,
        "requiresPhotos": True,
        "timeOnSiteMin": 10,
    },
    {
        "id": "tpl-retail",
        "name": "Retail Store Audit",
        "notes": "Merchandising, availability, signage, queue time.",
        "defaultStore": "Demo Retail",
        "defaultLocation": _cairo("Zamalek, Cairo", "Zamalek", 30.0667, 31.2167),
        "defaultChecklist": [
            _item("Signage present at entrance"),
            _item("Shelves tidy", photo=True),
        ],
        "defaultBudget": 0,
        "defaultFee": 50,
        "requiresVideo": False,
        "requiresPhotos": True,
        "timeOnSiteMin": 8,
    },
    {
        "id": "tpl-bank",
        "name": "Bank Branch Service",
        "notes": "Greeting, ID process, product knowledge.",
        "defaultStore": "Demo Branch",
        "defaultLocation": _cairo("Nasr City, Cairo", "Nasr City", 30.056, 31.330),
        "defaultChecklist": [
            _item("Security present"),
            _item("Waiting time", comment=True, timer=True),
        ],
        "defaultBudget": 0,
        "defaultFee": 60,
        "requiresVideo": False,
        "requiresPhotos": False,
        "timeOnSiteMin": 12,
    },
]
