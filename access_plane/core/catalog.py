from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class CatalogApp:
    app_id: str
    name: str
    is_paid: bool
    bundle_ids: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class CatalogBundle:
    bundle_id: str
    name: str
    app_ids: tuple[str, ...]


APPS: dict[str, CatalogApp] = {
    app.app_id: app
    for app in (
        CatalogApp("main", "Main Portal", is_paid=True),
        CatalogApp("learn-ai", "Learn AI", is_paid=True, bundle_ids=("ai-developer-bundle",)),
        CatalogApp("learn-apt", "Learn Aptitude", is_paid=False),
        CatalogApp("learn-chemistry", "Learn Chemistry", is_paid=False),
        CatalogApp(
            "learn-developer",
            "Learn Developer",
            is_paid=True,
            bundle_ids=("ai-developer-bundle",),
        ),
        CatalogApp("learn-geography", "Learn Geography", is_paid=False),
        CatalogApp("learn-management", "Learn Management", is_paid=True),
        CatalogApp("learn-math", "Learn Math", is_paid=False),
        CatalogApp("learn-physics", "Learn Physics", is_paid=False),
        CatalogApp("learn-pr", "Learn PR", is_paid=True),
    )
}

BUNDLES: dict[str, CatalogBundle] = {
    "ai-developer-bundle": CatalogBundle(
        bundle_id="ai-developer-bundle",
        name="AI + Developer Bundle",
        app_ids=("learn-ai", "learn-developer"),
    ),
}


def get_app(app_id: str) -> CatalogApp | None:
    return APPS.get(app_id)


def is_known_course(course_id: str) -> bool:
    return course_id in APPS or course_id in BUNDLES


def is_free_app(app_id: str) -> bool:
    app = APPS.get(app_id)
    return app is not None and not app.is_paid


def course_display_name(course_id: str) -> str:
    app = APPS.get(course_id)
    if app is not None:
        return app.name
    bundle = BUNDLES.get(course_id)
    if bundle is not None:
        return bundle.name
    return course_id


def access_app_ids(app_id: str) -> tuple[str, ...]:
    """Ids whose entitlements unlock ``app_id``: the app itself and every bundle holding it."""
    containing_bundles = tuple(
        bundle.bundle_id for bundle in BUNDLES.values() if app_id in bundle.app_ids
    )
    return (app_id, *containing_bundles)
