from .bundle import LegacyPost, PageBundle, create_bundle, discover, load_bundle, move_bundle
from .frontmatter import EntryDocument, parse_frontmatter, render_frontmatter
from .migrate import MigrationResult, migrate_all, migrate_post
from .naming import bundle_name, parse_bundle_name, slugify
from .references import (
    AssetReference,
    IntegrityIssue,
    check_bundle,
    check_content_root,
    find_references,
    unreferenced_assets,
)

__version__ = "0.1.0"
