"""
Research asset categories and file type fallbacks.

The repository reports an asset's type as "category.subcategory"
(e.g. "publication.journalArticle"). File type applicability in the
AssetFileAndLinkTypes mapping table is configured per category only,
so every type code is resolved to its parent category before filtering.
"""

from typing import Optional


# =============================================================================
# CATEGORIES
# =============================================================================

# code -> (display name, description)
ASSET_CATEGORIES: dict[str, tuple[str, str]] = {
    "conference": ("Conference/Event", "Conference papers, posters, presentations, and event materials"),
    "creativeWork": ("Creative Work", "Creative and artistic works including performances, compositions, and visual arts"),
    "dataset": ("Dataset", "Collections of related facts and data"),
    "etd": ("ETD", "Electronic Theses and Dissertations from this institution"),
    "etdexternal": ("External ETD", "Electronic Theses and Dissertations from external institutions"),
    "interactiveResource": ("Interactive Resource", "Blogs, podcasts, webinars, websites and virtual environments"),
    "other": ("Other", "Maps, models and other research outputs"),
    "patent": ("Patent", "Patents"),
    "postedContent": ("Posted Content", "Preprints, accepted manuscripts and working papers"),
    "publication": ("Publication", "Books, articles, reports and other published works"),
    "software": ("Software", "Code and workflows"),
    "teaching": ("Teaching and Learning", "Teaching activities and learning materials"),
}


# =============================================================================
# TYPE CODE -> CATEGORY
# =============================================================================

_SUBTYPES: dict[str, list[str]] = {
    "conference": [
        "conferencePaper", "conferencePoster", "conferencePresentation",
        "conferenceProgram", "eventposter", "presentation",
    ],
    "creativeWork": [
        "choreography", "dance", "designAndArchitecture", "drama", "essay",
        "exhibitionCatalog", "fiction", "film", "musicalComposition",
        "musicalPerformance", "musicalScore", "newMedia", "nonFiction", "other",
        "painting", "poetry", "script", "sculpture", "setDesign", "theater",
    ],
    "dataset": ["dataset"],
    "etd": ["doctoral", "graduate", "undergraduate"],
    "etdexternal": ["doctoral_external", "graduate_external", "undergraduate_external"],
    "interactiveResource": ["blog", "podcast", "virtualRealityEnvironment", "webinar", "website"],
    "other": ["map", "model", "other"],
    "patent": ["patent"],
    "postedContent": ["acceptedManuscript", "preprint", "workingPaper"],
    "publication": [
        "abstract", "annotation", "bibliography", "book", "bookChapter",
        "bookReview", "conferenceProceeding", "dictionaryEntry", "editedBook",
        "editorial", "encyclopediaEntry", "journalArticle", "journalIssue",
        "letter", "magazineArticle", "newsletterArticle", "newspaperArticle",
        "report", "technicalDocumentation", "translation",
    ],
    "software": ["code", "workflow"],
    "teaching": [
        "activity", "assessment", "casestudy", "course", "coursematerial",
        "lecture", "lessonPlan", "syllabus", "other",
    ],
}

ASSET_TYPE_TO_CATEGORY: dict[str, str] = {
    f"{category}.{subtype}": category
    for category, subtypes in _SUBTYPES.items()
    for subtype in subtypes
}


# =============================================================================
# FILE TYPE FALLBACKS
# =============================================================================

# Used as file type hints when the mapping table cannot be loaded
FALLBACK_FILE_TYPES: list[dict[str, str]] = [
    {"code": "accepted", "description": "Accepted"},
    {"code": "submitted", "description": "Submitted"},
    {"code": "supplementary", "description": "Supplementary"},
    {"code": "administrative", "description": "Administrative"},
]


def resolve_asset_category(asset_type: Optional[str]) -> Optional[str]:
    """
    Resolve a full asset type code to its category code.

    "publication.journalArticle" -> "publication"
    "publication" -> "publication"
    "unknownThing" -> None
    """
    if not asset_type:
        return None

    asset_type = asset_type.strip()

    if asset_type in ASSET_TYPE_TO_CATEGORY:
        return ASSET_TYPE_TO_CATEGORY[asset_type]

    if asset_type in ASSET_CATEGORIES:
        return asset_type

    prefix = asset_type.split(".", 1)[0]
    if prefix in ASSET_CATEGORIES:
        return prefix

    return None
