"""
Sanity to Strapi Migration

Moves a Sanity studio and its dataset export into a Strapi project.

Supports:
- Schema recovery from defineType/defineField source files (flat or category-organized)
- Relationship inference between document types
- Strapi content-type, component and handler generation
- Asset upload to the Strapi media library or Cloudinary
- Batched content creation with deferred relationship resolution
- Generation and migration reports
"""

__version__ = "0.1.0"
