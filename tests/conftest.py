"""Shared fixtures: a small studio project and its dataset export."""

import json
from pathlib import Path
from textwrap import dedent

import pytest

from sanity2strapi.errors import CreateRejectedError
from sanity2strapi.extractors.schema_extractor import SchemaExtractor
from sanity2strapi.loaders.base import BaseLoader
from sanity2strapi.models.migration import MigrationConfig
from sanity2strapi.models.record import MigrationResult
from sanity2strapi.services.relationship_inference import RelationshipInferencer
from sanity2strapi.services.schema_converter import SchemaConverter


POST_SCHEMA = dedent("""
    import {defineArrayMember, defineField, defineType} from 'sanity'
    import {DocumentTextIcon} from '@sanity/icons'

    export default defineType({
      name: 'post',
      title: 'Post',
      type: 'document',
      icon: DocumentTextIcon,
      fields: [
        defineField({
          name: 'title',
          title: 'Title',
          type: 'string',
          validation: (Rule) => Rule.required().max(120),
        }),
        defineField({
          name: 'slug',
          type: 'slug',
          options: {source: 'title', maxLength: 96},
        }),
        defineField({
          name: 'author',
          type: 'reference',
          to: {type: 'person'},
        }),
        defineField({
          name: 'categories',
          type: 'array',
          of: [defineArrayMember({type: 'reference', to: [{type: 'category'}]})],
        }),
        defineField({
          name: 'mainImage',
          type: 'image',
          options: {hotspot: true},
        }),
        defineField({
          name: 'tags',
          type: 'array',
          of: [{type: 'string'}],
        }),
        defineField({
          name: 'status',
          type: 'string',
          options: {
            list: [
              {title: 'Draft', value: 'draft'},
              {title: 'Published', value: 'published'},
            ],
            layout: 'radio',
          },
        }),
        defineField({name: 'body', type: 'blockContent'}),
        defineField({name: 'seo', type: 'seo'}),
        defineField({name: 'publishedAt', type: 'datetime'}),
      ],
      preview: {
        select: {title: 'title', media: 'mainImage'},
        prepare(selection) {
          const {title} = selection
          return {...selection, subtitle: `Post: ${title}`}
        },
      },
    })
""")

PERSON_SCHEMA = dedent("""
    import {defineField, defineType} from 'sanity'

    export const person = defineType({
      name: 'person',
      title: 'Person',
      type: 'document',
      fields: [
        defineField({name: 'name', type: 'string', validation: (Rule) => Rule.required()}),
        defineField({name: 'bio', type: 'text'}),
      ],
    })
""")

CATEGORY_SCHEMA = dedent("""
    // Categories group posts
    export default {
      name: 'category',
      type: 'document',
      fields: [
        {name: 'title', type: 'string'},
        {name: 'description', type: 'text'},
      ],
    }
""")

BLOCK_CONTENT_SCHEMA = dedent("""
    import {defineArrayMember, defineType} from 'sanity'

    export default defineType({
      title: 'Block Content',
      name: 'blockContent',
      type: 'array',
      of: [
        defineArrayMember({
          type: 'block',
          styles: [{title: 'Normal', value: 'normal'}, {title: 'H2', value: 'h2'}],
          marks: {annotations: [{name: 'link', type: 'object', fields: [{name: 'href', type: 'url'}]}]},
        }),
      ],
    })
""")

SEO_SCHEMA = dedent("""
    import {defineField, defineType} from 'sanity'

    export default defineType({
      name: 'seo',
      type: 'object',
      fields: [
        defineField({name: 'metaTitle', type: 'string'}),
        defineField({name: 'ogImage', type: 'image'}),
      ],
    })
""")

SETTINGS_SCHEMA = dedent("""
    export default {
      name: 'siteSettings',
      title: 'Site Settings',
      type: 'document',
      fields: [{name: 'siteTitle', type: 'string'}],
    }
""")

INDEX_SCHEMA = dedent("""
    import post from './post'
    import category from './category'

    export const schemaTypes = [post, category]
""")


DOCUMENTS = [
    {"_id": "c1", "_type": "category", "title": "News"},
    {"_id": "c2", "_type": "category", "title": "Tech"},
    {"_id": "p1", "_type": "person", "name": "Ada", "bio": "Writes things"},
    {
        "_id": "post-1",
        "_type": "post",
        "_createdAt": "2024-01-01T00:00:00Z",
        "title": "Hello world",
        "slug": {"_type": "slug", "current": "hello-world"},
        "author": {"_type": "reference", "_ref": "p1"},
        "categories": [
            {"_key": "a", "_type": "reference", "_ref": "c1"},
            {"_key": "b", "_type": "reference", "_ref": "c2"},
        ],
        "mainImage": {"_type": "image", "asset": {"_type": "reference", "_ref": "image-abc123-100x200-png"}},
        "tags": ["news", "tech"],
        "status": "draft",
        "body": [
            {
                "_type": "block",
                "_key": "k1",
                "style": "h2",
                "markDefs": [],
                "children": [{"_type": "span", "text": "Hi", "marks": ["strong"]}],
            }
        ],
        "seo": {"_type": "seo", "metaTitle": "Hello"},
        "legacyField": "dropped",
        "publishedAt": "2024-01-02T03:04:05Z",
    },
    {"_id": "siteSettings", "_type": "siteSettings", "siteTitle": "My Site"},
    {"_id": "image-abc123-100x200-png", "_type": "sanity.imageAsset", "url": "https://cdn/abc.png"},
]

ASSETS = {
    "image-abc123-100x200-png": {
        "sha1hash": "abc123",
        "originalFilename": "hero.png",
        "mimeType": "image/png",
        "metadata": {"dimensions": {"width": 100, "height": 200}},
    },
    "image-def456-10x10-png": {
        "sha1hash": "def456",
        "originalFilename": "missing.png",
        "metadata": {"dimensions": {"width": 10, "height": 10}},
    },
}


def write_files(root: Path, files: dict) -> None:
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


@pytest.fixture
def studio_path(tmp_path) -> Path:
    """Flat-layout studio project."""
    root = tmp_path / "studio"
    write_files(root, {
        "schemaTypes/index.ts": INDEX_SCHEMA,
        "schemaTypes/post.ts": POST_SCHEMA,
        "schemaTypes/person.ts": PERSON_SCHEMA,
        "schemaTypes/category.js": CATEGORY_SCHEMA,
        "schemaTypes/blockContent.ts": BLOCK_CONTENT_SCHEMA,
        "schemaTypes/seo.ts": SEO_SCHEMA,
        "schemaTypes/siteSettings.singleton.ts": SETTINGS_SCHEMA,
    })
    return root


@pytest.fixture
def organized_studio_path(tmp_path) -> Path:
    """Category-organized studio project."""
    root = tmp_path / "organized"
    write_files(root, {
        "schemaTypes/index.ts": INDEX_SCHEMA,
        "schemaTypes/documents/post.ts": POST_SCHEMA,
        "schemaTypes/documents/person.ts": PERSON_SCHEMA,
        "schemaTypes/documents/category.js": CATEGORY_SCHEMA,
        "schemaTypes/objects/blockContent.ts": BLOCK_CONTENT_SCHEMA,
        "schemaTypes/objects/seo.ts": SEO_SCHEMA,
        "schemaTypes/singletons/siteSettings.ts": SETTINGS_SCHEMA,
    })
    return root


@pytest.fixture
def export_path(tmp_path) -> Path:
    """Dataset export with documents, an asset index and one image file."""
    root = tmp_path / "export"
    (root / "images").mkdir(parents=True)
    lines = [json.dumps(doc) for doc in DOCUMENTS]
    lines.insert(2, "{not valid json")
    (root / "data.ndjson").write_text("\n".join(lines) + "\n", encoding="utf-8")
    (root / "assets.json").write_text(json.dumps(ASSETS), encoding="utf-8")
    (root / "images" / "abc123-100x200.png").write_bytes(b"\x89PNG fake image")
    return root


@pytest.fixture
def strapi_path(tmp_path) -> Path:
    root = tmp_path / "strapi"
    root.mkdir()
    return root


@pytest.fixture
def config(studio_path, export_path, strapi_path, tmp_path) -> MigrationConfig:
    return MigrationConfig(
        sanity_project_path=str(studio_path),
        sanity_export_path=str(export_path),
        strapi_project_path=str(strapi_path),
        strapi_url="http://strapi.test",
        api_token="secret-token",
        batch_delay=0,
        retry_delay=0,
        generation_report_path=str(tmp_path / "schema-generation-report.json"),
        migration_report_path=str(tmp_path / "universal-migration-report.json"),
    )


class InMemoryLoader(BaseLoader):
    """Loader keeping entities in a dict, rejecting chosen source ids."""

    provider = "memory"

    def __init__(self, reject=()):
        super().__init__(retry_attempts=0, retry_delay=0)
        self.reject = set(reject)
        self.entities = {}
        self.created = []
        self.updates = []
        self.uploads = []
        self.closed = False

    async def create_entity(self, schema, data, source_id=None):
        if source_id in self.reject:
            raise CreateRejectedError(
                "POST failed: API Error 400 - invalid",
                status_code=400,
                body={"error": {"message": "invalid"}},
            )
        target_id = len(self.created) + 1
        document_id = f"doc-{source_id}"
        self.entities[document_id] = {"id": target_id, "documentId": document_id, **data}
        self.created.append((schema.singular_name, source_id))
        return MigrationResult(record_id=source_id, target_id=target_id, document_id=document_id, success=True)

    async def fetch_entity(self, schema, document_id):
        return dict(self.entities[document_id])

    async def update_entity(self, schema, document_id, data):
        self.updates.append((document_id, data))
        self.entities[document_id] = {"id": self.entities[document_id]["id"], "documentId": document_id, **data}
        return self.entities[document_id]

    async def upload_asset(self, file_path, entry):
        self.uploads.append(file_path)
        return {"id": f"media-{entry.sha1hash}", "url": f"/uploads/{entry.original_filename}", "provider": self.provider}

    async def close(self):
        self.closed = True


@pytest.fixture
def catalog(studio_path):
    """Catalog converted from the flat studio project."""
    recovery = SchemaExtractor(str(studio_path)).recover()
    inference = RelationshipInferencer(recovery.documents).infer()
    return SchemaConverter(recovery, inference).convert()
