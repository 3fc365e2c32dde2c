"""HTML pages shaped like the two supported sites."""

VOL_INDEX_URL = "https://www.vol.at/themen/grund-und-boden"


def vol_index_page(article_ids, next_href=None):
    """vol.at topic page listing the given article ids in its embedded JSON."""
    hits = ",".join(
        f'{{"link": "https://www.vol.at/grund-und-boden-artikel/{article_id}"}}' for article_id in article_ids
    )
    pagination = f'<nav class="pagination"><a class="next" href="{next_href}">Weiter</a></nav>' if next_href else ""
    return f"""
    <html><body>
      <script id="topicDataNode" type="application/json">
        {{"prefetchedRawData": {{"hits": [{hits}]}}}}
      </script>
      {pagination}
    </body></html>
    """


def vol_article_url(article_id):
    return f"https://www.vol.at/grund-und-boden-artikel/{article_id}"


VOL_ARTICLE = """
<html><head>
  <meta property="article:published_time" content="2024-03-15T08:00:00+01:00">
</head><body>
  <script id="externalPostDataNode" type="application/json">
  {"content": {"data": {"post": {
    "title": "Grundstück in Lustenau um 350.000 Euro verkauft",
    "content": "<p>Ein Grundstück in Lustenau mit 800 Quadratmetern hat den Besitzer gewechselt.</p>",
    "date": "2024-03-15T08:00:00+01:00",
    "blocks": [
      {"ot": "core/paragraph", "a": []},
      {"ot": "russmedia/grund-und-boden", "a": [
        {"key": "data", "value": "{\\"transactionDate\\": \\"2024-02-28\\", \\"coords\\": {\\"lat\\": 47.4239, \\"lng\\": 9.6558}, \\"address\\": \\"Maria-Theresien-Straße 12, 6890 Lustenau\\"}"}
      ]}
    ]
  }}}}
  </script>
</body></html>
"""

VOL_ARTICLE_HTML_ONLY = """
<html><head>
  <meta property="article:published_time" content="2024-01-10T10:00:00+01:00">
</head><body>
  <article>
    <h1 class="article-headline">Einfamilienhaus in Dornbirn verkauft</h1>
    <div class="article-body">
      <p>Ein Einfamilienhaus in Dornbirn wurde um 1,2 Mio. Euro verkauft.</p>
      <p>Die Wohnfläche beträgt 180 Quadratmeter.</p>
    </div>
  </article>
</body></html>
"""

LAENDLEIMMO_INDEX_URL = "https://www.laendleimmo.at/kaufobjekt"

LAENDLEIMMO_INDEX = """
<html><body>
  <div class="results">
    <a href="/immobilien/haus/einfamilienhaus/vorarlberg/dornbirn/12345">Einfamilienhaus</a>
    <a href="/immobilien/haus/einfamilienhaus/vorarlberg/dornbirn/12345#bilder">Bilder</a>
    <a href="https://www.laendleimmo.at/immobilien/wohnung/dachgeschosswohnung/vorarlberg/bregenz/23456">Wohnung</a>
    <a href="https://www.fremd.at/immobilien/haus/haus/vorarlberg/bludenz/34567">Fremd</a>
    <a href="/kontakt">Kontakt</a>
  </div>
  <a rel="next" href="/kaufobjekt?page=2">Nächste Seite</a>
</body></html>
"""

LAENDLEIMMO_DETAIL_URL = "https://www.laendleimmo.at/immobilien/haus/einfamilienhaus/vorarlberg/dornbirn/12345"

LAENDLEIMMO_DETAIL = """
<html><head>
  <script type="application/ld+json">
  {"@context": "https://schema.org", "@graph": [
    {"@type": "BreadcrumbList", "itemListElement": []},
    {"@type": "Product",
     "name": "Sonniges Einfamilienhaus mit Garten",
     "description": "Das Haus liegt ruhig in Dornbirn. Kaufpreis auf Anfrage.",
     "offers": {"@type": "Offer", "price": "649000", "priceCurrency": "EUR"},
     "address": {"streetAddress": "Marktstraße 5", "postalCode": "6850", "addressLocality": "Dornbirn"},
     "geo": {"latitude": 47.4125, "longitude": 9.7417},
     "floorSize": {"@type": "QuantitativeValue", "value": 142, "unitCode": "MTK"},
     "datePosted": "2024-04-02"}
  ]}
  </script>
</head><body>
  <h1>Sonniges Einfamilienhaus mit Garten</h1>
  <div class="object-details"><span>Zimmer</span> <span>5</span> <span>Grundstücksfläche</span> <span>612,50 m²</span></div>
</body></html>
"""
