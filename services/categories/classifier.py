# services/categories/classifier.py
"""
Keyword classification of article titles and normalization of category labels
against the content API's allow-list.

Keyword table
-------------
Groups are tested in the order below and the first match wins, so a title
mentioning both "climat" and "pollution" is filed under climate change. Each
keyword belongs to exactly one group. Keywords match at the start of a word:
"réchauff" matches "réchauffement", while "eau" does not match "réseau".
"""

import re
from typing import Iterable, List, Optional, Pattern, Tuple

DEFAULT_CATEGORY = "Changement climatique"

CATEGORY_KEYWORDS: List[Tuple[str, Tuple[str, ...]]] = [
    ("Changement climatique", (
        "climat", "climate", "heatwave", "heat wave", "canicule", "réchauff",
        "warming", "greenhouse", "gaz à effet de serre", "carbon", "carbone",
        "co2", "émissions", "emissions", "glacier", "cop2", "cop3",
    )),
    ("Pollution", (
        "pollution", "pollu", "plastique", "plastic", "microplasti", "smog",
        "air quality", "qualité de l'air", "waste", "déchet", "toxic", "toxique",
        "marée noire", "oil spill",
    )),
    ("Biodiversité", (
        "biodivers", "wildlife", "espèce", "species", "faune", "flore",
        "habitat", "ecosystem", "écosystème", "extinction", "coral", "corail",
        "coraux", "insect", "pollinis", "pollinat",
    )),
    ("Énergie", (
        "énergie", "energie", "energy", "solar", "solaire", "wind", "éolien",
        "nuclear", "nucléaire", "oil", "pétrole", "gaz", "gas", "renewable",
        "renouvelable", "hydrogen", "hydrogène", "coal", "charbon",
    )),
    ("Eau", (
        "eau", "eaux", "water", "sécheresse", "drought", "inond", "flood",
        "rivière", "river", "fleuve", "aquifer", "nappe", "groundwater",
        "wetland", "marais", "barrage", "dams", "desalination", "dessalement",
        "salinisation",
    )),
    ("Agriculture", (
        "agricultur", "agricole", "farmer", "farming", "agriculteur", "crop",
        "récolte", "pesticide", "fertilizer", "fertilisant", "engrais", "soil",
        "irrigation", "livestock", "élevage",
    )),
    ("Risques naturels", (
        "incendie", "wildfire", "séisme", "earthquake", "tsunami", "volcan",
        "volcano", "ouragan", "hurricane", "cyclone", "typhoon", "typhon",
        "tempête", "storm", "landslide", "glissement de terrain", "avalanche",
    )),
    ("Développement durable", (
        "développement durable", "sustainable development", "sustainability",
        "durabilité", "sdg",
    )),
    ("Économie circulaire", (
        "économie circulaire", "circular economy", "recycl", "réemploi",
        "reuse", "upcycl", "compost",
    )),
    ("Santé environnementale", (
        "santé environnementale", "environmental health", "public health",
        "santé publique", "perturbateur", "endocrine", "asthma", "asthme",
    )),
    ("Urbanisme durable", (
        "urbanisme", "urban planning", "ville durable", "smart city",
        "green building", "bâtiment", "végétalisation",
    )),
    ("Mobilité durable", (
        "mobilité", "mobility", "vélo", "bicycle", "cycling", "transport",
        "electric vehicle", "véhicule électrique", "voiture électrique",
    )),
    ("Innovations technologiques vertes", (
        "green tech", "greentech", "cleantech", "innovation", "startup",
        "battery", "batterie", "captage", "carbon capture",
    )),
    ("Politiques environnementales", (
        "policy", "politique", "legislation", "projet de loi", "regulation", "réglementation",
        "treaty", "traité", "government", "gouvernement", "ministre",
    )),
    ("Conservation", (
        "conservation", "protected area", "aire protégée", "parc national",
        "national park", "reforest", "reboisement", "déforestation",
        "deforestation", "forest", "forêt",
    )),
    ("Justice climatique", (
        "justice", "loss and damage", "pertes et préjudices", "inequalit",
        "inégalit", "indigenous", "autochtone",
    )),
    ("Éducation environnementale", (
        "éducation", "education", "school", "école", "students", "élèves",
        "sensibilisation", "awareness", "mooc",
    )),
]


def _compile_group(keywords: Iterable[str]) -> Pattern:
    return re.compile(r"\b(?:" + "|".join(re.escape(k) for k in keywords) + ")", re.IGNORECASE)


_COMPILED: List[Tuple[str, Pattern]] = [(label, _compile_group(kws)) for label, kws in CATEGORY_KEYWORDS]


def infer_category(title: Optional[str]) -> str:
    """Label of the first keyword group found in ``title``; the default otherwise."""
    text = (title or "").lower()
    for label, rx in _COMPILED:
        if rx.search(text):
            return label
    return DEFAULT_CATEGORY


# ----------------------------------------------------------------------
# Normalization against the allow-list
# ----------------------------------------------------------------------
VIDEO_LABEL_RX = re.compile(r"vid[ée]o|documentaire|documentary|reportage|replay", re.IGNORECASE)

# Synonym (lowercase) → canonical API label.
CATEGORY_SYNONYMS = {
    "changement climatique": "Changement climatique",
    "climat": "Changement climatique",
    "climate": "Changement climatique",
    "climate change": "Changement climatique",
    "pollution": "Pollution et santé environnementale",
    "pollution et santé": "Pollution et santé environnementale",
    "biodiversité": "Biodiversité (Bassin du Congo)",
    "biodiversity": "Biodiversité (Bassin du Congo)",
    "énergie": "Transition énergétique",
    "energie": "Transition énergétique",
    "energy": "Transition énergétique",
    "eau": "Eau et assainissement",
    "water": "Eau et assainissement",
    "agriculture": "Agriculture et alimentation",
    "alimentation": "Agriculture et alimentation",
    "risques naturels": "Risques naturels",
    "natural hazards": "Risques naturels",
    "catastrophes": "Catastrophes naturelles",
    "développement durable": "Développement durable",
    "sustainable development": "Développement durable",
    "économie circulaire": "Économie circulaire",
    "circular economy": "Économie circulaire",
    "santé environnementale": "Santé environnementale",
    "environmental health": "Santé environnementale",
    "urbanisme durable": "Développement durable",
    "mobilité durable": "Développement durable",
    "innovations technologiques vertes": "Innovations technologiques vertes",
    "green tech": "Innovations technologiques vertes",
    "politiques environnementales": "Politiques environnementales régionales",
    "environmental policy": "Politiques environnementales régionales",
    "conservation": "Conservation communautaire au Cameroun",
    "déforestation": "Déforestation & Bassin du Congo",
    "justice climatique": "Justice climatique",
    "climate justice": "Justice climatique",
    "éducation environnementale": "Programmes gratuits (MOOCs, bourses, séminaires, conférences)",
    "écotourisme": "Écotourisme",
}

MIN_PARTIAL_LENGTH = 3


def _partial(a: str, b: str) -> bool:
    """Substring match in either direction, ignoring very short fragments."""
    if not a or not b:
        return False
    if a in b:
        return len(a) >= MIN_PARTIAL_LENGTH
    if b in a:
        return len(b) >= MIN_PARTIAL_LENGTH
    return False


def normalize_category(raw_label: Optional[str], allow_list: Iterable[str], default_label: str) -> str:
    """
    Map ``raw_label`` onto a member of ``allow_list``.

    Steps: video-ish labels → default; exact allow-list hit; exact synonym;
    partial synonym; partial allow-list hit; default. The result is always in
    ``allow_list`` or equal to ``default_label``.
    """
    allowed = list(allow_list)
    allowed_set = set(allowed)
    raw = (raw_label or "").strip()
    if not raw:
        return default_label
    if VIDEO_LABEL_RX.search(raw):
        return default_label
    if raw in allowed_set:
        return raw

    lowered = raw.lower()
    mapped = CATEGORY_SYNONYMS.get(lowered)
    if mapped and mapped in allowed_set:
        return mapped

    for synonym, canonical in CATEGORY_SYNONYMS.items():
        if canonical in allowed_set and _partial(synonym, lowered):
            return canonical

    for member in allowed:
        if _partial(member.lower(), lowered):
            return member

    return default_label
