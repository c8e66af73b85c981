"""Resource collections exposed by the admin API."""

RESOURCE_NAMES = (
    "jobs",
    "companies",
    "authors",
    "articles",
    "article-categories",
    "job-categories",
    "scholarships",
    "videos",
    "users",
    "contacts",
    "provinces",
    "upload",
)
