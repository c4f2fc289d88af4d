from .generic_response import ApiResponse, CamelModel, ErrorResponse
from .child_record import (
    LocationSnapshot, ChildRecordBase, ChildRecordCreate, ChildRecordUpdate, ChildRecord,
    PaginatedRecords, RecordsSummary, ChildRecordResponse,
    BulkItemResult, BulkItemFailure, BulkSummary, BulkDetails, BulkUploadResponse,
    describe_validation_error,
)
from .auth import (
    PrincipalVerification, VerifyCodeRequest, PrincipalSnapshot, TokenGrant,
    PrincipalVerificationResponse, TokenGrantResponse,
    ProfileUpdate, ProfileSummary, ProfileSummaryResponse,
)
