"""Discovery, scoring, clustering and layout services."""
