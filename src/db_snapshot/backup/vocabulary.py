"""Node and attribute names of the snapshot backup document.

The names are part of the file format: backups written by one version must
load in another, so they never change.  Free text (descriptions, property
values, row values, patterns) is stored through ``escape_text``.

Layout:
    <DbSnapshot name="..." metadataTime="..." contentTime="...">
        <TABLE name="users" schema="public" primaryKey="id" numberOfRows="3">
            <column_descriptions>
                <column_description>name=id, type=INTEGER, ...</column_description>
            </column_descriptions>
            <indexes>
                <index uid="users_email_idx" description="COLUMN_NAME=email, ...">
                    <property name="NON_UNIQUE" value="false"/>
                </index>
            </indexes>
            <row>id=1|email=a@example.com</row>
        </TABLE>
        <SKIP_CONTENT table="events" rememberNumberOfRows="true"/>
        <SKIP_COLUMNS table="orders"><column>updated_at</column></SKIP_COLUMNS>
        <SKIP_INDEX_ATTRIBUTES table="users" index="users_email_idx">
            <attribute>TYPE</attribute>
        </SKIP_INDEX_ATTRIBUTES>
        <SKIP_ROWS table="sessions" column="expired" value="true"/>
        <INDEX_MATCHER pattern="idx_[a-z_]+"/>
    </DbSnapshot>
"""

NODE_DB_SNAPSHOT = "DbSnapshot"
ATTR_SNAPSHOT_NAME = "name"
ATTR_METADATA_TIME = "metadataTime"
ATTR_CONTENT_TIME = "contentTime"

NODE_TABLE = "TABLE"
ATTR_TABLE_NAME = "name"
ATTR_TABLE_SCHEMA = "schema"
ATTR_TABLE_PRIMARY_KEY = "primaryKey"
ATTR_TABLE_NUMBER_OF_ROWS = "numberOfRows"

NODE_COLUMN_DESCRIPTIONS = "column_descriptions"
NODE_COLUMN_DESCRIPTION = "column_description"

NODE_INDEXES = "indexes"
NODE_INDEX = "index"
ATTR_INDEX_UID = "uid"
ATTR_INDEX_DESCRIPTION = "description"
NODE_INDEX_PROPERTY = "property"
ATTR_PROPERTY_NAME = "name"
ATTR_PROPERTY_VALUE = "value"

NODE_ROW = "row"

NODE_SKIP_CONTENT = "SKIP_CONTENT"
ATTR_SKIP_TABLE = "table"
ATTR_REMEMBER_NUMBER_OF_ROWS = "rememberNumberOfRows"

NODE_SKIP_COLUMNS = "SKIP_COLUMNS"
NODE_SKIP_COLUMN = "column"

NODE_SKIP_INDEX_ATTRIBUTES = "SKIP_INDEX_ATTRIBUTES"
ATTR_SKIP_INDEX = "index"
NODE_SKIP_ATTRIBUTE = "attribute"

NODE_SKIP_ROWS = "SKIP_ROWS"
ATTR_SKIP_COLUMN = "column"
ATTR_SKIP_VALUE = "value"

NODE_INDEX_MATCHER = "INDEX_MATCHER"
ATTR_INDEX_PATTERN = "pattern"
