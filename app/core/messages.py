"""User-facing error messages and status text for the chat backend."""

# Protocol messages
PROTOCOL_INVALID_JSON = "Invalid JSON format"
PROTOCOL_INVALID_FORMAT = "Invalid message format"
PROTOCOL_UNKNOWN_TYPE = "Unsupported message type"
PROTOCOL_AUTH_REQUIRED = "Authenticate before sending messages"
PROTOCOL_ALREADY_AUTHENTICATED = "Connection is already authenticated"

# Conversation messages
CONVERSATION_NOT_FOUND = "Conversation not found"
CONVERSATION_NOT_PARTICIPANT = "You are not a participant in this conversation"
CONVERSATION_SAME_PARTICIPANTS = "Buyer and seller must be different users"
CONVERSATION_CREATED = "Conversation created successfully"
CONVERSATION_EXISTS = "Conversation already exists"

# Message messages
MESSAGE_CONTENT_REQUIRED = "Message content is required"
MESSAGE_SENT = "Message sent successfully"
MESSAGE_SEND_FAILED = "Failed to send message"
MESSAGES_FETCH_FAILED = "Failed to fetch messages"
CONVERSATIONS_FETCH_FAILED = "Failed to fetch conversations"
CONVERSATION_CREATE_FAILED = "Failed to create conversation"

# Connection messages
CONNECTION_SUPERSEDED = "Superseded by a newer connection"
SERVER_SHUTTING_DOWN = "Server shutting down"

# General error messages
ERROR_INTERNAL_SERVER = "Internal server error"
