"""
Reference lookups: NAICS sectors and US Census regions.
"""

from typing import NamedTuple


class StateRegion(NamedTuple):
    """Census classification of a state or territory."""

    name: str
    region: str
    division: str


# Two-digit NAICS sector -> sector name
NAICS_SECTORS: dict[str, str] = {
    "11": "Agriculture, Forestry, Fishing and Hunting",
    "21": "Mining, Quarrying, and Oil and Gas Extraction",
    "22": "Utilities",
    "23": "Construction",
    "31": "Manufacturing",
    "32": "Manufacturing",
    "33": "Manufacturing",
    "42": "Wholesale Trade",
    "44": "Retail Trade",
    "45": "Retail Trade",
    "48": "Transportation and Warehousing",
    "49": "Transportation and Warehousing",
    "51": "Information",
    "52": "Finance and Insurance",
    "53": "Real Estate and Rental and Leasing",
    "54": "Professional, Scientific, and Technical Services",
    "55": "Management of Companies and Enterprises",
    "56": "Administrative and Support Services",
    "61": "Educational Services",
    "62": "Health Care and Social Assistance",
    "71": "Arts, Entertainment, and Recreation",
    "72": "Accommodation and Food Services",
    "81": "Other Services (except Public Administration)",
    "92": "Public Administration",
}

STATE_REGIONS: dict[str, StateRegion] = {
    "AL": StateRegion("Alabama", "South", "East South Central"),
    "AK": StateRegion("Alaska", "West", "Pacific"),
    "AZ": StateRegion("Arizona", "West", "Mountain"),
    "AR": StateRegion("Arkansas", "South", "West South Central"),
    "CA": StateRegion("California", "West", "Pacific"),
    "CO": StateRegion("Colorado", "West", "Mountain"),
    "CT": StateRegion("Connecticut", "Northeast", "New England"),
    "DE": StateRegion("Delaware", "South", "South Atlantic"),
    "FL": StateRegion("Florida", "South", "South Atlantic"),
    "GA": StateRegion("Georgia", "South", "South Atlantic"),
    "HI": StateRegion("Hawaii", "West", "Pacific"),
    "ID": StateRegion("Idaho", "West", "Mountain"),
    "IL": StateRegion("Illinois", "Midwest", "East North Central"),
    "IN": StateRegion("Indiana", "Midwest", "East North Central"),
    "IA": StateRegion("Iowa", "Midwest", "West North Central"),
    "KS": StateRegion("Kansas", "Midwest", "West North Central"),
    "KY": StateRegion("Kentucky", "South", "East South Central"),
    "LA": StateRegion("Louisiana", "South", "West South Central"),
    "ME": StateRegion("Maine", "Northeast", "New England"),
    "MD": StateRegion("Maryland", "South", "South Atlantic"),
    "MA": StateRegion("Massachusetts", "Northeast", "New England"),
    "MI": StateRegion("Michigan", "Midwest", "East North Central"),
    "MN": StateRegion("Minnesota", "Midwest", "West North Central"),
    "MS": StateRegion("Mississippi", "South", "East South Central"),
    "MO": StateRegion("Missouri", "Midwest", "West North Central"),
    "MT": StateRegion("Montana", "West", "Mountain"),
    "NE": StateRegion("Nebraska", "Midwest", "West North Central"),
    "NV": StateRegion("Nevada", "West", "Mountain"),
    "NH": StateRegion("New Hampshire", "Northeast", "New England"),
    "NJ": StateRegion("New Jersey", "Northeast", "Middle Atlantic"),
    "NM": StateRegion("New Mexico", "West", "Mountain"),
    "NY": StateRegion("New York", "Northeast", "Middle Atlantic"),
    "NC": StateRegion("North Carolina", "South", "South Atlantic"),
    "ND": StateRegion("North Dakota", "Midwest", "West North Central"),
    "OH": StateRegion("Ohio", "Midwest", "East North Central"),
    "OK": StateRegion("Oklahoma", "South", "West South Central"),
    "OR": StateRegion("Oregon", "West", "Pacific"),
    "PA": StateRegion("Pennsylvania", "Northeast", "Middle Atlantic"),
    "RI": StateRegion("Rhode Island", "Northeast", "New England"),
    "SC": StateRegion("South Carolina", "South", "South Atlantic"),
    "SD": StateRegion("South Dakota", "Midwest", "West North Central"),
    "TN": StateRegion("Tennessee", "South", "East South Central"),
    "TX": StateRegion("Texas", "South", "West South Central"),
    "UT": StateRegion("Utah", "West", "Mountain"),
    "VT": StateRegion("Vermont", "Northeast", "New England"),
    "VA": StateRegion("Virginia", "South", "South Atlantic"),
    "WA": StateRegion("Washington", "West", "Pacific"),
    "WV": StateRegion("West Virginia", "South", "South Atlantic"),
    "WI": StateRegion("Wisconsin", "Midwest", "East North Central"),
    "WY": StateRegion("Wyoming", "West", "Mountain"),
    "DC": StateRegion("District of Columbia", "South", "South Atlantic"),
    "PR": StateRegion("Puerto Rico", "South", "Caribbean"),
    "GU": StateRegion("Guam", "West", "Pacific"),
    "VI": StateRegion("Virgin Islands", "South", "Caribbean"),
}
