"""
Response Status Codes

Defines standard response status codes for the API.
"""


class ResponseCode:
    """Standard response status codes"""

    # Success codes (2xx)
    SUCCESS = 200
    CREATED = 201

    # Client error codes (4xx)
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    UNPROCESSABLE_ENTITY = 422

    # Server error codes (5xx)
    INTERNAL_SERVER_ERROR = 500
    BAD_GATEWAY = 502
    SERVICE_UNAVAILABLE = 503

    # Custom business codes (1xxx)
    BUSINESS_ERROR = 1000
    VALIDATION_ERROR = 1001
    RESOURCE_NOT_FOUND = 1004

    # Preview pipeline codes (2xxx)
    PREVIEW_FETCH_FAILED = 2001
    PREVIEW_WORKSPACE_FAILED = 2002
    PREVIEW_DOCKERFILE_FAILED = 2003
    PREVIEW_BUILD_FAILED = 2004
    PREVIEW_RUN_FAILED = 2005
    PREVIEW_RUNTIME_ERROR = 2006

    @classmethod
    def get_message(cls, code: int) -> str:
        """Get default message for status code"""
        messages = {
            cls.SUCCESS: "Success",
            cls.CREATED: "Created successfully",

            cls.BAD_REQUEST: "Bad request",
            cls.UNAUTHORIZED: "Unauthorized",
            cls.FORBIDDEN: "Forbidden",
            cls.NOT_FOUND: "Resource not found",
            cls.UNPROCESSABLE_ENTITY: "Validation failed",

            cls.INTERNAL_SERVER_ERROR: "Internal server error",
            cls.BAD_GATEWAY: "Bad gateway",
            cls.SERVICE_UNAVAILABLE: "Service unavailable",

            cls.BUSINESS_ERROR: "Business logic error",
            cls.VALIDATION_ERROR: "Validation error",
            cls.RESOURCE_NOT_FOUND: "Resource not found",

            cls.PREVIEW_FETCH_FAILED: "Failed to fetch repository files",
            cls.PREVIEW_WORKSPACE_FAILED: "Failed to create preview workspace",
            cls.PREVIEW_DOCKERFILE_FAILED: "Failed to generate Dockerfile",
            cls.PREVIEW_BUILD_FAILED: "Docker build failed",
            cls.PREVIEW_RUN_FAILED: "Container start failed",
            cls.PREVIEW_RUNTIME_ERROR: "Container runtime error",
        }
        return messages.get(code, "Unknown error")

    @classmethod
    def for_phase(cls, phase: str) -> int:
        """Map a preview pipeline phase to its error code"""
        return {
            "fetch": cls.PREVIEW_FETCH_FAILED,
            "workspace": cls.PREVIEW_WORKSPACE_FAILED,
            "detect": cls.PREVIEW_DOCKERFILE_FAILED,
            "dockerfile": cls.PREVIEW_DOCKERFILE_FAILED,
            "build": cls.PREVIEW_BUILD_FAILED,
            "run": cls.PREVIEW_RUN_FAILED,
        }.get(phase, cls.INTERNAL_SERVER_ERROR)
