from enum import Enum

from tortoise import fields, models


class SiteStatus(str, Enum):
    INDEXING = "INDEXING"
    INDEXED = "INDEXED"
    FAILED = "FAILED"


class Site(models.Model):
    """
    A configured site and the state of its latest crawl campaign.
    """
    id = fields.IntField(pk=True)

    url = fields.CharField(max_length=255, unique=True)
    name = fields.CharField(max_length=255)
    status = fields.CharEnumField(SiteStatus, max_length=16, index=True)
    status_time = fields.DatetimeField()
    last_error = fields.TextField(null=True)

    class Meta:
        table = "site"

    def __str__(self):
        return f"{self.url} [{self.status}]"
