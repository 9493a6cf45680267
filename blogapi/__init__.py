"""
Backend package for the blog image service.

Modules:
- settings: Centralized configuration
- db: SQLite persistence layer (posts)
- models: Post / Attachment types
- errors: Lifecycle failure types
- signatures: Image magic-number detection
- uploads: Upload capability objects
- image_validation: Upload validation
- storage: Filesystem blob store
- posts: Post service and image attachment lifecycle
- app_info: Start time / uptime reporting
- auth: Authentication
- audit_log: Allowlist audit logging
- logging_config: Logging setup
"""
