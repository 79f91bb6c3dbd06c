# User-facing message catalogue, keyed by the machine-readable error/success code.
# Throttling messages carry a {minutes_left} placeholder.

MESSAGES = {
    # Signup / email verification
    "OTP_SENT_SUCCESS": "OTP sent to your email. Please verify to complete registration.",
    "EMAIL_VERIFIED_SUCCESS": "Email verified successfully. Account created.",
    "EMAIL_ALREADY_VERIFIED": "Email already verified. Please login.",
    "EMAIL_ALREADY_REGISTERED": "Email already registered. Please login instead.",
    "NO_SIGNUP_FOUND": "No signup found for this email. Please sign up first.",
    "INVALID_EMAIL_OR_OTP": "Invalid email or OTP. Please sign up again.",

    # OTP
    "INVALID_OTP": "Invalid OTP. Please check and try again.",
    "OTP_MAX_ATTEMPTS_REACHED": "Invalid OTP. Maximum attempts reached. Please try again in {minutes_left} minute(s).",
    "OTP_EXPIRED": "OTP has expired. Please request a new OTP.",
    "OTP_COOLDOWN_WAIT": "Please wait {minutes_left} minute(s) before requesting another OTP.",
    "OTP_LIMIT_REACHED": "OTP limit reached. Please try again in {minutes_left} minute(s).",
    "OTP_COOLDOWN_ACTIVE": "Please wait {minutes_left} minute(s) before requesting another OTP.",
    "OTP_NOT_FOUND": "OTP not found. Please request a new OTP.",
    "OTP_REQUIRED": "OTP is required when old password is not provided.",
    "EMAIL_SEND_FAILED": "Failed to send OTP email. Please try again.",

    # Password reset
    "PASSWORD_RESET_OTP_SENT": "Password reset OTP sent to your email.",
    "PASSWORD_RESET_SUCCESS": "Password reset successfully.",
    "PASSWORD_CHANGE_SUCCESS": "Password changed successfully.",
    "INVALID_OLD_PASSWORD": "Invalid old password.",
    "OLD_NEW_PASSWORD_SAME": "Old password and new password cannot be the same.",
    "EMAIL_NOT_FOUND": "Email not found. Please check your email address.",

    # Login / session
    "LOGIN_SUCCESS": "Login successful.",
    "LOGIN_OTP_SENT": "Login OTP sent to your email. Please verify to complete login.",
    "INVALID_EMAIL_OR_PASSWORD": "Invalid email or password.",
    "ACCOUNT_NOT_VERIFIED": "Account not verified. Please verify your email first.",
    "ACCOUNT_BLOCKED": "Your account has been blocked. Please contact support.",
    "ACCOUNT_SUSPENDED": "Your account has been suspended. Please contact support.",
    "ACCOUNT_INACTIVE": "Your account is inactive. Please contact support.",
    "LOGOUT_SUCCESS": "Logged out successfully.",
    "AUTHENTICATION_REQUIRED": "Authentication required",
    "INVALID_TOKEN": "Invalid or expired token",
    "USER_FETCHED_SUCCESS": "User data fetched successfully.",
    "USER_NOT_FOUND": "User not found.",

    # Chat requests
    "CHAT_REQUEST_SENT": "Chat request sent",
    "CHAT_REQUEST_ACCEPTED": "Chat request accepted",
    "CHAT_REQUEST_REJECTED": "Chat request rejected",
    "CHAT_REQUEST_CANCELLED": "Chat request cancelled",
    "CANNOT_REQUEST_SELF": "Cannot send chat request to yourself",
    "RECEIVER_NOT_FOUND": "Receiver not found",
    "CHAT_ALREADY_ENABLED": "Chat already enabled with this user",
    "CHAT_REQUEST_PENDING": "Chat request already pending",
    "CHAT_REQUEST_NOT_FOUND": "Chat request not found",
    "ONLY_RECEIVER_CAN_ACCEPT": "Only the receiver can accept this request",
    "ONLY_RECEIVER_CAN_REJECT": "Only the receiver can reject this request",
    "ONLY_SENDER_CAN_CANCEL": "Only the sender can cancel this request",
    "INVALID_REQUEST_STATE": "Cannot {action} a {status} request",

    # Messages / conversations
    "MESSAGE_SENT": "Message sent",
    "MESSAGE_DELETED": "Message deleted",
    "MESSAGES_MARKED_READ": "Messages marked as read",
    "CHAT_NOT_ALLOWED": "Chat not allowed. Please send a chat request first.",
    "CONVERSATION_NOT_FOUND": "Conversation not found",
    "NOT_CONVERSATION_PARTICIPANT": "You are not a participant of this conversation",
    "CONVERSATION_NOT_JOINED": "Join the conversation before sending typing updates",
    "MESSAGE_NOT_FOUND": "Message not found",
    "NOT_MESSAGE_PARTICIPANT": "You are not allowed to delete this message",

    # Generic
    "VALIDATION_FAILED": "Validation failed",
    "INTERNAL_ERROR": "Internal server error",
    "RATE_LIMIT_EXCEEDED": "Rate limit exceeded. Please try again later.",
    "REQUEST_TOO_LARGE": "Request entity too large",
}


def get_message(code: str, **params) -> str:
    template = MESSAGES.get(code, code)
    if params:
        return template.format(**params)
    return template
