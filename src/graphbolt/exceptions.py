# Copyright (c) "Neo4j"
# Neo4j Sweden AB [https://neo4j.com]
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.


"""
This module contains the core driver exceptions.

Server Errors
=============
+ GraphError
  + ClientError
    + CypherSyntaxError
    + CypherTypeError
    + ConstraintError
    + AuthError
    + Forbidden
  + DatabaseError
  + TransientError
    + DatabaseUnavailable
    + NotALeader
    + ForbiddenOnReadOnlyDatabase

Driver Errors
=============
+ DriverError
  + UsageError
    + ConfigurationError
    + SessionError
    + TransactionError
    + ResultError
      + ResultConsumedError
  + ServiceUnavailable
    + SessionExpired
    + RoutingServiceUnavailable
    + ReadServiceUnavailable
    + WriteServiceUnavailable
  + ResourceExhausted
    + ConnectionAcquisitionTimeout
    + RoutingServiceUnavailable
  + ProtocolError
    + HandshakeError
"""


from __future__ import annotations

import typing as t
from os import strerror


if t.TYPE_CHECKING:
    import typing_extensions as te


CLASSIFICATION_CLIENT: te.Final[str] = "ClientError"
CLASSIFICATION_TRANSIENT: te.Final[str] = "TransientError"
CLASSIFICATION_DATABASE: te.Final[str] = "DatabaseError"


# GraphError
class GraphError(Exception):
    """ Raised when the server returns a FAILURE to the client.
    """

    #: (str or None) The error message returned by the server.
    message = None
    #: (str or None) The error code returned by the server.
    code = None
    classification = None
    category = None
    title = None
    #: (dict) Any additional information returned by the server.
    metadata = None

    @classmethod
    def hydrate(
        cls, message: str = None, code: str = None, **metadata: t.Any
    ) -> GraphError:
        message = message or "An unknown error occurred"
        code = code or "Neo.DatabaseError.General.UnknownError"
        try:
            _, classification, category, title = code.split(".")
        except ValueError:
            classification = CLASSIFICATION_DATABASE
            category = "General"
            title = "UnknownError"

        error_class = cls._extract_error_class(classification, code)

        inst = error_class(message)
        inst.message = message
        inst.code = code
        inst.classification = classification
        inst.category = category
        inst.title = title
        inst.metadata = metadata
        return inst

    @classmethod
    def _extract_error_class(cls, classification, code):
        if classification == CLASSIFICATION_CLIENT:
            try:
                return client_errors[code]
            except KeyError:
                return ClientError

        elif classification == CLASSIFICATION_TRANSIENT:
            try:
                return transient_errors[code]
            except KeyError:
                return TransientError

        elif classification == CLASSIFICATION_DATABASE:
            return DatabaseError

        else:
            return cls

    def is_retryable(self) -> bool:
        """Whether the error is retryable.

        Retrying is the business of the caller; this package never loops
        on its own.

        :return: :const:`True` if the error is retryable,
            :const:`False` otherwise.
        """
        return False

    def __str__(self):
        if self.code or self.message:
            return "{{code: {code}}} {{message: {message}}}".format(
                code=self.code, message=self.message
            )
        return super().__str__()


# GraphError > ClientError
class ClientError(GraphError):
    """ The Client sent a bad request - changing the request might yield a successful outcome.
    """


# GraphError > ClientError > CypherSyntaxError
class CypherSyntaxError(ClientError):
    """
    """


# GraphError > ClientError > CypherTypeError
class CypherTypeError(ClientError):
    """
    """


# GraphError > ClientError > ConstraintError
class ConstraintError(ClientError):
    """
    """


# GraphError > ClientError > AuthError
class AuthError(ClientError):
    """ Raised when authentication failure occurs.
    """


# GraphError > ClientError > Forbidden
class Forbidden(ClientError):
    """
    """


# GraphError > DatabaseError
class DatabaseError(GraphError):
    """ The database failed to service the request.
    """


# GraphError > TransientError
class TransientError(GraphError):
    """ The database cannot service the request right now, retrying later might yield a successful outcome.
    """

    def is_retryable(self) -> bool:
        return True


# GraphError > TransientError > DatabaseUnavailable
class DatabaseUnavailable(TransientError):
    """
    """


# GraphError > TransientError > NotALeader
class NotALeader(TransientError):
    """ The server addressed is no longer the leader of the cluster and
    cannot accept writes.
    """


# GraphError > TransientError > ForbiddenOnReadOnlyDatabase
class ForbiddenOnReadOnlyDatabase(TransientError):
    """
    """


client_errors: t.Dict[str, t.Type[GraphError]] = {

    # ConstraintError
    "Neo.ClientError.Schema.ConstraintValidationFailed": ConstraintError,
    "Neo.ClientError.Schema.ConstraintViolation": ConstraintError,
    "Neo.ClientError.Statement.ConstraintVerificationFailed": ConstraintError,
    "Neo.ClientError.Statement.ConstraintViolation": ConstraintError,

    # CypherSyntaxError
    "Neo.ClientError.Statement.InvalidSyntax": CypherSyntaxError,
    "Neo.ClientError.Statement.SyntaxError": CypherSyntaxError,

    # CypherTypeError
    "Neo.ClientError.Procedure.TypeError": CypherTypeError,
    "Neo.ClientError.Statement.InvalidType": CypherTypeError,
    "Neo.ClientError.Statement.TypeError": CypherTypeError,

    # Forbidden
    "Neo.ClientError.General.ForbiddenOnReadOnlyDatabase": ForbiddenOnReadOnlyDatabase,
    "Neo.ClientError.General.ReadOnly": Forbidden,
    "Neo.ClientError.Schema.ForbiddenOnConstraintIndex": Forbidden,
    "Neo.ClientError.Schema.IndexBelongsToConstraint": Forbidden,
    "Neo.ClientError.Security.Forbidden": Forbidden,
    "Neo.ClientError.Transaction.ForbiddenDueToTransactionType": Forbidden,

    # AuthError
    "Neo.ClientError.Security.AuthorizationFailed": AuthError,
    "Neo.ClientError.Security.Unauthorized": AuthError,

    # NotALeader
    "Neo.ClientError.Cluster.NotALeader": NotALeader,
}

transient_errors: t.Dict[str, t.Type[GraphError]] = {

    # DatabaseUnavailableError
    "Neo.TransientError.General.DatabaseUnavailable": DatabaseUnavailable
}


# DriverError
class DriverError(Exception):
    """ Raised when the Driver raises an error.
    """

    def is_retryable(self) -> bool:
        """Whether the error is retryable.

        :return: :const:`True` if the error is retryable,
            :const:`False` otherwise.
        """
        return False


# DriverError > UsageError
class UsageError(DriverError):
    """ Raised when the driver API is used incorrectly. These errors are
    precondition violations and are never worth retrying.
    """


# DriverError > UsageError > ConfigurationError
class ConfigurationError(UsageError):
    """ Raised when there is an error concerning a configuration.
    """


# DriverError > UsageError > SessionError
class SessionError(UsageError):
    """ Raised when a session is used after it has been closed, or when
    a second unit of work is attempted while one is still open.
    """

    def __init__(self, session_, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.session = session_


# DriverError > UsageError > TransactionError
class TransactionError(UsageError):
    """ Raised when an operation is attempted on a transaction that has
    already been committed, rolled back or failed.
    """

    def __init__(self, transaction_, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.transaction = transaction_


# DriverError > UsageError > ResultError
class ResultError(UsageError):
    """Raised when an error occurs while using a result object."""

    def __init__(self, result_, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.result = result_


# DriverError > UsageError > ResultError > ResultConsumedError
class ResultConsumedError(ResultError):
    """Raised when trying to access records of a consumed result."""


# DriverError > ServiceUnavailable
class ServiceUnavailable(DriverError):
    """ Raised when no database service is available.

    This may be due to incorrect configuration or could indicate a runtime
    failure of a database service that the driver is unable to route around.
    """

    def __str__(self):
        s = super().__str__()
        errno = self.errno
        if errno:
            s += f" (code {errno}: {strerror(errno)})"
        return s

    @property
    def errno(self):
        try:
            return self.__cause__.errno
        except AttributeError:
            return None

    def is_retryable(self) -> bool:
        return True


# DriverError > ServiceUnavailable > SessionExpired
class SessionExpired(ServiceUnavailable):
    """ Raised when an established connection is lost or broken, so that
    the unit of work it carried can no longer be completed.
    """


# DriverError > ServiceUnavailable > WriteServiceUnavailable
class WriteServiceUnavailable(ServiceUnavailable):
    """ Raised when no write service is available.
    """


# DriverError > ServiceUnavailable > ReadServiceUnavailable
class ReadServiceUnavailable(ServiceUnavailable):
    """ Raised when no read service is available.
    """


# DriverError > ResourceExhausted
class ResourceExhausted(DriverError):
    """ Raised when a bounded resource could not be obtained in time.
    This signals "busy, try later" rather than "down".
    """

    def is_retryable(self) -> bool:
        return True


# DriverError > ResourceExhausted > ConnectionAcquisitionTimeout
class ConnectionAcquisitionTimeout(ResourceExhausted):
    """ Raised when no connection could be obtained from a full pool
    within the acquisition timeout.
    """


# DriverError > ServiceUnavailable, ResourceExhausted > RoutingServiceUnavailable
class RoutingServiceUnavailable(ServiceUnavailable, ResourceExhausted):
    """ Raised when every known router failed to provide routing
    information.
    """


# DriverError > ProtocolError
class ProtocolError(DriverError):
    """ Raised when an unexpected or malformed protocol event occurs.
    Protocol errors are fatal to the connection on which they occur.
    """

    def __init__(self, message, address=None):
        super().__init__(message)
        self.address = address


# DriverError > ProtocolError > HandshakeError
class HandshakeError(ProtocolError):
    """ Raised when a handshake completes unsuccessfully.
    """

    def __init__(self, message, address, request_data=None,
                 response_data=None):
        super().__init__(message, address)
        self.request_data = request_data
        self.response_data = response_data
