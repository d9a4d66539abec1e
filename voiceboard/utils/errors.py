"""Error handling utilities."""


class VoiceBoardError(Exception):
    """Base exception for VoiceBoard backend."""
    retryable = False


class AudioCaptureError(VoiceBoardError):
    """Microphone unavailable or permission denied."""
    pass


class AudioEncodingError(VoiceBoardError):
    """Audio clip could not be encoded for transport."""
    pass


class ExtractionError(VoiceBoardError):
    """AI extraction failed (network, non-JSON or schema mismatch)."""
    retryable = True


class SupabaseError(VoiceBoardError):
    """Supabase operation error."""
    retryable = True


class AuthError(VoiceBoardError):
    """Missing session or sign-in failure."""
    pass


class TaskNotFoundError(VoiceBoardError):
    """Task or subtask does not exist."""
    pass


class ConcurrentEditError(VoiceBoardError):
    """An AI update is already processing for this task."""
    retryable = True


class StaleResponseError(VoiceBoardError):
    """AI response arrived for a request that is no longer current."""
    pass
