"""项目内使用的自定义异常定义。"""


class ThumbGeneratorError(Exception):
    """基础异常类型。"""


class InvalidConfigurationError(ThumbGeneratorError):
    """配置不合法时抛出。"""


class DirectoryAccessError(ThumbGeneratorError):
    """工作目录或输出目录无法创建或读取，整个任务终止。"""


class NotAnImageError(ThumbGeneratorError):
    """文件内容不是可识别的图片格式。"""


class UnsupportedFormatError(ThumbGeneratorError):
    """编码目标格式不受支持。"""


class ImageWriteError(ThumbGeneratorError):
    """输出写入失败。"""


class ResizeFailure(ThumbGeneratorError):
    """目标尺寸为零或无法分配新画布。"""


class WatermarkLoadError(ThumbGeneratorError):
    """水印文件无法加载。"""
