"""
Application Constants
"""

# 文档状态
DOC_STATUS_PENDING = "pending"
DOC_STATUS_PROCESSING = "processing"
DOC_STATUS_COMPLETED = "completed"
DOC_STATUS_FAILED = "failed"

DOCUMENT_STATUS = {
    DOC_STATUS_PENDING: "待处理",
    DOC_STATUS_PROCESSING: "处理中",
    DOC_STATUS_COMPLETED: "已完成",
    DOC_STATUS_FAILED: "处理失败",
}

# 知识库可见性
KB_VISIBILITY_PRIVATE = "private"
KB_VISIBILITY_PUBLIC = "public"
KB_VISIBILITY_READONLY = "readonly"

KB_VISIBILITIES = (KB_VISIBILITY_PRIVATE, KB_VISIBILITY_PUBLIC, KB_VISIBILITY_READONLY)

# 组织成员角色
ORG_ROLE_OWNER = "owner"
ORG_ROLE_ADMIN = "admin"
ORG_ROLE_MEMBER = "member"

# 向量用量记录的操作类型
USAGE_OPERATION_INGEST = "ingest"
USAGE_OPERATION_QUERY = "query"
USAGE_OPERATION_DELETE = "delete"

USAGE_OPERATIONS = (USAGE_OPERATION_INGEST, USAGE_OPERATION_QUERY, USAGE_OPERATION_DELETE)

# 对象存储键前缀
STORAGE_KEY_PREFIX = "knowledge-bases"
DEFAULT_STORAGE_FILE_NAME = "document"
