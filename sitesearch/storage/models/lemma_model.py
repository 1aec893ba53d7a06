from tortoise import fields, models


class Lemma(models.Model):
    """
    Dictionary form seen on a site; ``frequency`` counts pages, not occurrences.
    """
    id = fields.IntField(pk=True)

    site = fields.ForeignKeyField(
        "models.Site",
        related_name="lemmas",
        on_delete=fields.CASCADE,
    )
    lemma = fields.CharField(max_length=255, index=True)
    frequency = fields.IntField(default=0)

    class Meta:
        table = "lemma"
        unique_together = (("site", "lemma"),)
