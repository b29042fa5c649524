"""
Google Drive pod.

Implements the pod contract on Google Drive: every pod directory is a Drive
folder below a configured root folder, and every record file is a Drive file
holding Fernet-encrypted content. Supports OAuth2 and Service Account
authentication.
"""

import io
import logging
from pathlib import Path
from typing import Any

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google.oauth2.service_account import Credentials as ServiceAccountCredentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseDownload, MediaIoBaseUpload

from healthpod.infrastructure.pod_client.base import (
    CallStatus,
    DirectoryListing,
    split_pod_path,
)
from healthpod.infrastructure.pod_client.encryption import RecordCipher
from healthpod.utils.exceptions import (
    AuthenticationError,
    PodClientError,
    PodFileNotFoundError,
)
from healthpod.utils.parameters import DriveConfig

logger = logging.getLogger(__name__)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
RECORD_MIME_TYPE = "application/octet-stream"


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


class DrivePodClient:
    """
    Pod client backed by Google Drive.

    Folder IDs are cached per pod path for the lifetime of the client.
    """

    def __init__(
        self,
        config: DriveConfig,
        cipher: RecordCipher | None,
        service: Any = None,
    ) -> None:
        """
        Initialize Drive pod client.

        Args:
            config: Drive configuration.
            cipher: Cipher for file contents, or None when not logged in.
            service: Prebuilt Drive service. If None, authenticates from config.

        Raises:
            AuthenticationError: If authentication fails.
        """
        self.config = config
        self.cipher = cipher
        self.service: Any = service
        self._folder_cache: dict[str, str] = {"": config.root_folder_id}

        if self.service is None:
            self._authenticate()

    def _authenticate(self) -> None:
        """
        Authenticate with Google Drive API.

        Raises:
            AuthenticationError: If authentication fails.
        """
        try:
            if self.config.auth_method == "oauth2":
                creds: Credentials | ServiceAccountCredentials = self._authenticate_oauth2()
            elif self.config.auth_method == "service_account":
                creds = self._authenticate_service_account()
            else:
                raise AuthenticationError(f"Unknown auth method: {self.config.auth_method}")

            self.service = build("drive", "v3", credentials=creds)
            logger.info(f"Authenticated with Google Drive using {self.config.auth_method}")

        except Exception as e:
            raise AuthenticationError(f"Authentication failed: {e}") from e

    def _authenticate_oauth2(self) -> Credentials:
        """
        Authenticate using OAuth2 installed app flow.

        Returns:
            Valid credentials.
        """
        oauth2 = self.config.oauth2
        if oauth2 is None:
            raise AuthenticationError("OAuth2 configuration missing")

        creds: Credentials | None = None
        token_path = Path(oauth2.token_path)

        if token_path.exists():
            creds = Credentials.from_authorized_user_file(str(token_path), oauth2.scopes)

        if not creds or not creds.valid:
            if creds and creds.expired and creds.refresh_token:
                creds.refresh(Request())
            else:
                flow = InstalledAppFlow.from_client_secrets_file(
                    oauth2.credentials_path, oauth2.scopes
                )
                creds = flow.run_local_server(port=0)

            token_path.parent.mkdir(parents=True, exist_ok=True)
            with open(token_path, "w") as token:
                token.write(creds.to_json())

        return creds

    def _authenticate_service_account(self) -> ServiceAccountCredentials:
        account = self.config.service_account
        if account is None:
            raise AuthenticationError("Service account configuration missing")

        creds = ServiceAccountCredentials.from_service_account_file(
            account.credentials_path,
            scopes=account.scopes,
        )
        return creds  # type: ignore[no-any-return]

    def _find_child(self, parent_id: str, name: str, folder: bool) -> str | None:
        """
        Look up a child of a Drive folder by name.

        Raises:
            PodClientError: If the Drive query fails.
        """
        query = f"name='{_quote(name)}' and '{parent_id}' in parents and trashed=false"
        if folder:
            query += f" and mimeType='{FOLDER_MIME_TYPE}'"

        try:
            results = self.service.files().list(q=query, fields="files(id, name)").execute()
        except HttpError as e:
            raise PodClientError(f"Failed to look up '{name}' in folder {parent_id}: {e}") from e

        files = results.get("files", [])
        return files[0]["id"] if files else None

    def _folder_id(self, dir_path: str, create: bool = False) -> str | None:
        """
        Resolve the Drive folder ID of a pod directory.

        Args:
            dir_path: Pod directory path.
            create: Create missing folders along the way.

        Returns:
            Folder ID, or None if the folder does not exist and create is False.

        Raises:
            PodClientError: If a Drive call fails.
        """
        dir_path = dir_path.strip("/")
        if dir_path in self._folder_cache:
            return self._folder_cache[dir_path]

        parent_path, name = split_pod_path(dir_path)
        parent_id = self._folder_id(parent_path, create=create)
        if parent_id is None:
            return None

        folder_id = self._find_child(parent_id, name, folder=True)
        if folder_id is None:
            if not create:
                return None
            metadata = {"name": name, "mimeType": FOLDER_MIME_TYPE, "parents": [parent_id]}
            try:
                folder_id = self.service.files().create(body=metadata, fields="id").execute()["id"]
            except HttpError as e:
                raise PodClientError(f"Failed to create Drive folder '{dir_path}': {e}") from e
            logger.info(f"Created Drive folder '{dir_path}' with ID: {folder_id}")

        self._folder_cache[dir_path] = folder_id
        return folder_id

    def _file_id(self, path: str) -> str | None:
        dir_path, name = split_pod_path(path)
        folder_id = self._folder_id(dir_path)
        if folder_id is None:
            return None
        return self._find_child(folder_id, name, folder=False)

    def write_encrypted(self, path: str, content: str) -> CallStatus:
        if self.cipher is None:
            return CallStatus.NOT_LOGGED_IN

        try:
            dir_path, name = split_pod_path(path)
            folder_id = self._folder_id(dir_path, create=True)
            media = MediaIoBaseUpload(
                io.BytesIO(self.cipher.encrypt(content)), mimetype=RECORD_MIME_TYPE
            )

            existing_id = self._find_child(folder_id, name, folder=False)
            if existing_id:
                self.service.files().update(fileId=existing_id, media_body=media).execute()
            else:
                metadata = {"name": name, "parents": [folder_id]}
                self.service.files().create(
                    body=metadata, media_body=media, fields="id"
                ).execute()

        except (HttpError, PodClientError) as e:
            logger.error(f"Failed to write {path}: {e}")
            return CallStatus.FAIL

        logger.debug(f"Wrote {path}")
        return CallStatus.SUCCESS

    def read_encrypted(self, path: str) -> str | CallStatus:
        if self.cipher is None:
            return CallStatus.NOT_LOGGED_IN

        try:
            file_id = self._file_id(path)
            if file_id is None:
                logger.warning(f"File not found: {path}")
                return CallStatus.FAIL

            request = self.service.files().get_media(fileId=file_id)
            buffer = io.BytesIO()
            downloader = MediaIoBaseDownload(buffer, request)
            done = False
            while not done:
                _, done = downloader.next_chunk()

            return self.cipher.decrypt(buffer.getvalue())

        except (HttpError, PodClientError) as e:
            logger.warning(f"Failed to read {path}: {e}")
            return CallStatus.FAIL

    def delete_file(self, path: str) -> None:
        """
        Delete a pod file.

        Raises:
            PodFileNotFoundError: If the file does not exist.
            PodClientError: If deletion fails.
        """
        try:
            file_id = self._file_id(path)
            if file_id is None:
                raise PodFileNotFoundError(f"File not found: {path}")
            self.service.files().delete(fileId=file_id).execute()
        except HttpError as e:
            raise PodClientError(f"Failed to delete {path}: {e}") from e

        logger.debug(f"Deleted {path}")

    def resolve_directory(self, dir_path: str) -> str | None:
        """
        Resolve a pod directory to its Drive folder ID (None if missing).

        Raises:
            PodClientError: If the lookup fails.
        """
        return self._folder_id(dir_path)

    def list_directory(self, handle: str | None) -> DirectoryListing:
        """
        List files and folders in a Drive folder.

        Raises:
            PodClientError: If listing fails.
        """
        if handle is None:
            return DirectoryListing()

        try:
            query = f"'{handle}' in parents and trashed=false"
            fields = "nextPageToken, files(id, name, mimeType)"

            listing = DirectoryListing()
            page_token = None

            while True:
                results = (
                    self.service.files()
                    .list(q=query, fields=fields, pageToken=page_token, pageSize=100)
                    .execute()
                )

                for file_data in results.get("files", []):
                    if file_data.get("mimeType") == FOLDER_MIME_TYPE:
                        listing.sub_dirs.append(file_data["name"])
                    else:
                        listing.files.append(file_data["name"])

                page_token = results.get("nextPageToken")
                if not page_token:
                    break

            logger.debug(f"Listed {len(listing.files)} files from folder {handle}")
            return listing

        except HttpError as e:
            raise PodClientError(f"Failed to list folder {handle}: {e}") from e
