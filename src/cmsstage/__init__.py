"""cmsstage - content resolution, authorization and portlet composition."""

__version__ = "0.1.0"
