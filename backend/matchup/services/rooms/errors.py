class RoomError(Exception):
    """Base for every rejected room action.

    Silent errors are retransmissions the protocol tolerates; they are
    dropped without telling the client.
    """
    message = 'Action not allowed'
    silent = False

    def __init__(self, message=None):
        super().__init__(message or self.message)
        self.message = message or self.message


class RoomNotFound(RoomError):
    message = 'Room not found'


class RoomFull(RoomError):
    message = 'Room is full'


class NotInRoom(RoomError):
    message = 'Not in a room'


class AlreadyInRoom(RoomError):
    message = 'Already in a room'


class InvalidPhase(RoomError):
    message = 'Action not valid in current state'


class DuplicateSubmission(RoomError):
    message = 'Items already submitted'
    silent = True


class DuplicateChoice(RoomError):
    message = 'Choice already recorded'
    silent = True
