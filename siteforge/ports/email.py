from typing import Protocol


class EmailPort(Protocol):
    def send_email(
        self,
        recipient: str,
        subject: str,
        body_html: str,
        body_text: str | None = None,
    ) -> None:
        ...
