from io import StringIO

import os
import ZConfig


_schema = None


def getFileSystemSchema():
    global _schema
    if _schema is None:
        here = os.path.dirname(os.path.abspath(__file__))
        _schema = ZConfig.loadSchema(os.path.join(here, "schema.xml"))
    return _schema


def fileSystemFromString(s):
    """Open the filesystem described by a configuration string."""
    return fileSystemFromFile(StringIO(s))


def fileSystemFromFile(f):
    config, handle = ZConfig.loadConfigFile(getFileSystemSchema(), f)
    return fileSystemFromConfig(config.filesystem)


def fileSystemFromURL(url):
    config, handler = ZConfig.loadConfig(getFileSystemSchema(), url)
    return fileSystemFromConfig(config.filesystem)


def fileSystemFromConfig(section):
    return section.open()


class S3FileSystemFactory:
    """ZConfig factory for S3FileSystem."""

    def __init__(self, config):
        self.config = config
        self.name = config.getSectionName()

    def open(self):
        from s3dirfs.filesystem import S3FileSystem
        from s3dirfs.s3client import S3Client

        config = self.config
        s3_client = S3Client(
            bucket_name=config.bucket_name,
            prefix=config.s3_prefix,
            endpoint_url=config.s3_endpoint_url,
            region_name=config.s3_region,
            aws_access_key_id=config.s3_access_key,
            aws_secret_access_key=config.s3_secret_key,
            use_ssl=config.s3_use_ssl,
            addressing_style=config.s3_addressing_style,
            sse_customer_key=config.s3_sse_customer_key,
            list_version=config.list_version,
            upload_part_size=config.upload_part_size,
            upload_threads=config.upload_threads,
        )
        return S3FileSystem(
            s3_client,
            working_dir=config.working_directory,
            max_paging_keys=config.max_paging_keys,
            max_copy_threads=config.max_copy_threads,
            max_copy_tasks=config.max_copy_tasks,
            max_concurrent_copy_tasks_per_dir=config.max_concurrent_copy_tasks_per_dir,
            put_if_not_exist=config.put_if_not_exist,
            upload_part_size=config.upload_part_size,
        )
