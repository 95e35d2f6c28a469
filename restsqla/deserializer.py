class Deserializer:
    """
    Converts incoming payloads to the shape expected by the RestService,
    the default implementation returns the payload as is
    """

    def deserialize(self, adapter, type_, payload):
        """
        :param adapter: the RestAdapter that received the payload
        :param type_: the resource type
        :param payload: the request payload
        :return: the normalized payload
        """
        return payload
