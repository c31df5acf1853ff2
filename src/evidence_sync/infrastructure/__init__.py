"""Infrastructure adapters: database, remote store and media storage"""
