from tortoise import fields, models


class Page(models.Model):
    """
    One crawled path of a site. ``content`` is empty for error or non-HTML responses.
    """
    id = fields.IntField(pk=True)

    site = fields.ForeignKeyField(
        "models.Site",
        related_name="pages",
        on_delete=fields.CASCADE,
    )
    path = fields.CharField(max_length=1024, index=True)
    code = fields.IntField()
    content = fields.TextField()

    class Meta:
        table = "page"
        unique_together = (("site", "path"),)

    def __str__(self):
        return f"{self.path} [{self.code}]"
