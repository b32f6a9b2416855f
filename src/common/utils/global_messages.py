class GlobalMessages:
    # Auth Messages
    INVALID_CREDENTIALS = "Invalid email or password."
    ACCOUNT_ALREADY_EXISTS = "An account with this email already exists."
    LOGOUT_SUCCESS = "Logout successful."
    AUTH_HEADER_MISSING = "Authorization header is missing."
    REFRESH_TOKEN_INVALID = "Refresh token is not valid."
    SELF_REGISTRATION_ROLES = "Only doctor and patient accounts can be registered."

    # User Messages
    USER_NOT_FOUND = "User not found."
    USER_DELETED = "User deleted successfully."
    ROLE_CHANGE_NOT_ALLOWED = "A user's role cannot be changed after creation."
    CANNOT_DELETE_SELF = "Admins cannot delete their own account."

    # Prescription Messages
    DOCTOR_PROFILE_REQUIRED = "Only doctors can create prescriptions."
    PATIENT_PROFILE_REQUIRED = "Only patients can access their own prescriptions."
    PATIENT_NOT_FOUND = "Patient not found."
    PRESCRIPTION_NOT_FOUND = "Prescription not found."
    PRESCRIPTION_NOT_OWNED = "You cannot access a prescription that is not yours."
    PRESCRIPTION_ALREADY_CONSUMED = "This prescription has already been consumed."
    EMPTY_TRANSCRIPTION = "The audio could not be transcribed or is empty."
    NO_ITEMS_EXTRACTED = "No medications could be extracted from the audio."
